"""Booking relay: website booking notifications to LINE and Facebook Messenger."""
