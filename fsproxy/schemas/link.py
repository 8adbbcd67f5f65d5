from pydantic import BaseModel


class LinkRequest(BaseModel):
    path: str


class LinkData(BaseModel):
    url: str = ""
    header: dict[str, list[str]] | None = None


class LinkResponse(BaseModel):
    code: int
    message: str = ""
    data: LinkData | None = None


class ErrorEnvelope(BaseModel):
    code: int
    message: str = ""
