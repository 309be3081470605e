"""
StoreBot Payments — Uvicorn Launcher

Serves the Mercado Pago webhook that reconciles customer wallet charges,
plan payments and balance top-ups against the gateway. Point the gateway's
notification URL at the printed webhook address.

Usage:
    python run.py
    python run.py --port 4478 --reload
    python run.py --public-url https://bot.example.com
"""
import argparse
import uvicorn

from storebot.config import get_settings

WEBHOOK_PATH = "/api/payments/mercadopago/webhook"


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Mercado Pago payment reconciliation webhook server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=4478, help="Bind port (default: 4478)")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")
    parser.add_argument(
        "--public-url",
        default=None,
        help="Externally reachable base URL, used to print the notification URL to register",
    )

    args = parser.parse_args()
    base_url = (args.public_url or f"http://localhost:{args.port}").rstrip("/")

    print(f"""
    ========================================================
      {settings.APP_NAME} v{settings.APP_VERSION}
      Notification URL: {base_url}{WEBHOOK_PATH}
      Operator lookup:  {base_url}/api/admin/payments/<payment id>
      Gateway API:      {settings.MERCADO_PAGO_API_URL}
      Database:         {settings.DATABASE_URL}
      Email:            {'SMTP ' + settings.SMTP_HOST if settings.SMTP_HOST else 'disabled (no SMTP_HOST)'}
    ========================================================
    """)

    uvicorn.run(
        "storebot.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
