"""Spotify now-playing backend for a wallpaper display."""
