"""
Olimpo Gym backend application package.

This package contains:
- main: FastAPI application entrypoint
- memberships: membership lifecycle (create / renew / expiry sweep)
- notifications: notification records, templates and channel senders
- automation: scheduled jobs (expiry check, auto renew, reminders)
"""
