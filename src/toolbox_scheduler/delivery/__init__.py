"""
Reminder delivery channels.

- channels.py: message composition + ReminderChannels (notify / send_mail / send_sms)
- providers.py: SMTP provider classification -> TLS mode / auth mechanism
- smtp_transport.py: smtplib-based MailTransport
- notifier.py: plyer-based desktop Notifier
- sms_gateway.py: carrier -> email-to-SMS gateway table
"""
