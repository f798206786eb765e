"""Surface Pilot: autonomous agent for remote VNC desktops and adb devices."""
