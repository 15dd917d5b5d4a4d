from passcode_auth.models.schema.otp import OtpEntry
from passcode_auth.models.schema.session import SessionEntry


class Databases:
    session = SessionEntry
    otp = OtpEntry
