from pydantic import BaseModel


class ClaimResponse(BaseModel):
    subject: str
    issuer: str
    audience: str
    issued_at: int
    expires_at: int
    state: str
