"""
Case Screening Server Runner
============================
Run this directly: python run_server.py
"""
import uvicorn

from app.core.config import get_settings


def main():
    settings = get_settings()

    print()
    print("=" * 60)
    print(f"  {settings.app_name.upper()} SERVER")
    print("=" * 60)
    print()
    print(f"  API Docs:  http://localhost:{settings.port}/api/docs")
    print(f"  OCR:       {'enabled (' + settings.ocr_provider + ')' if settings.ocr_enabled else 'disabled'}")
    print(f"  Database:  {settings.database_url}")
    print()
    print("  Press Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        workers=1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
