"""UI package — system tray front end."""
