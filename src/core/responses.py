from html import escape
from typing import Any

from fastapi import status
from fastapi.responses import HTMLResponse, JSONResponse


def success_response(data: Any, message: str = "Success", status_code: int = status.HTTP_200_OK):
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "message": message,
            "data": data,
        }
    )


def message_page(message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> HTMLResponse:
    """Minimal HTML page for browser-facing errors."""
    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>Payment Error</title>
        <style>
            body {{
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
                display: flex;
                justify-content: center;
                align-items: center;
                min-height: 100vh;
                margin: 0;
                background: #f5f5f5;
            }}
            .container {{
                text-align: center;
                padding: 2rem;
                background: white;
                border-radius: 12px;
                box-shadow: 0 2px 8px rgba(0,0,0,0.1);
            }}
            .failed {{ color: #ef4444; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="failed">Payment Error</h1>
            <p>{escape(message)}</p>
        </div>
    </body>
    </html>
    """
    return HTMLResponse(content=html_content, status_code=status_code)
