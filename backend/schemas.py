from pydantic import BaseModel, Field


class CaptchaResponse(BaseModel):
    puzzle_id: str = Field(..., description="Handle to send back with the solution")
    fen: str = Field(..., description="FEN of the position to solve, side to move mates in one")


class VerifyRequest(BaseModel):
    puzzle_id: str
    solution: str = Field(..., description="Move in SAN or UCI (e.g., 'Qb8#' or 'b1b8')")


class VerifyResponse(BaseModel):
    correct: bool
    message: str
