from typing import Optional
from sqlmodel import SQLModel

class Token(SQLModel):
    access_token: str
    token_type: str = "bearer"

class AdminToken(Token):
    admin_id: int
    username: str
    is_main: bool = False
    # Echoed back by the frontend in the admin-permissions header
    permissions: dict

class AccountToken(Token):
    account_id: int
    name: Optional[str] = None
