"""Clients for external HTTP APIs (Graph API, Telegram, Cloudinary, Gemini)."""
