from pydantic import BaseModel, EmailStr


class WhoAmIResponse(BaseModel):
    id: int
    user: EmailStr
    roles: list[str]
    full_name: str | None = None
    is_board_member: bool = False
