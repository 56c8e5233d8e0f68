"""melonkit - MelonLoader installer and version cleanup tool."""
