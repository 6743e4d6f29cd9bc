from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from leather_portal.config import settings
from leather_portal.errors import install_error_handlers
from leather_portal.logging_config import configure_logging
from leather_portal.routers import cron, invoices, notifications, quote_requests, sample_requests, webhooks
from leather_portal.security.headers import install_security_headers

configure_logging()

app = FastAPI(title=f'{settings.company_name} Portal API')

install_error_handlers(app)
install_security_headers(app)

app.include_router(quote_requests.router)
app.include_router(invoices.router)
app.include_router(sample_requests.router)
app.include_router(webhooks.router)
app.include_router(notifications.router)
app.include_router(cron.router)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok', 'environment': settings.environment}


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
