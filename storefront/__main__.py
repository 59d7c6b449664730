import os

import uvicorn

LISTEN_PORT = int(os.getenv("LISTEN_PORT", "8000"))

if __name__ == "__main__":
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=LISTEN_PORT)
