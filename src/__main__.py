import uvicorn
from dotenv import load_dotenv

from .config import BACKEND_DIR, get_settings, clear_settings_cache

# .env de la raíz del proyecto; se carga antes de leer HOST/PORT
ENV_PATH = BACKEND_DIR / ".env"


def main():
    load_dotenv(dotenv_path=ENV_PATH)
    clear_settings_cache()
    settings = get_settings()
    uvicorn.run("src.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
