"""Settings for Demo Video Automator."""
