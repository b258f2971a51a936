"""
Task scheduler and reminder delivery engine for the terminal toolbox.

Tasks with due dates, reminders attached to them, and a background loop that
delivers due reminders as desktop notifications, emails or SMS (through
email-to-SMS gateways) with bounded retries.
"""

__version__ = "0.1.0"
