from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# Token pairs must never end up in a browser or proxy cache
NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}

def no_store_json(data, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(data), status_code=status_code, headers=NO_STORE_HEADERS)
