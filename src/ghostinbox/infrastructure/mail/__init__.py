from .sendmail_transmitter import SendmailTransmitter

__all__ = ["SendmailTransmitter"]
