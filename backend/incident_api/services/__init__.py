"""
Services module for business logic.

- registry/: administrator sessions and device registrations
- push/: push message types, senders and the fan-out dispatcher
- events/: live-listener hub and report event broadcaster
- domain/: report creation, status changes and read-side queries
"""
