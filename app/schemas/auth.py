from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str  # plain str to allow .local and other dev domains
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    phone: str = ""
