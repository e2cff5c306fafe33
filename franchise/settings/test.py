from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

ALLOWED_HOSTS = ['testserver']

BASE_URL = 'http://testserver'

INSTAMOJO = {
    **INSTAMOJO,
    'API_KEY': '',
    'AUTH_TOKEN': '',
    'SALT': '',
    'API_URL': 'https://api.instamojo.test/v2/',
    'REDIRECT_URL': 'http://testserver/payment-success',
    'WEBHOOK_URL': 'http://testserver/api/webhook',
    'TEST_MODE': True,
    'ALLOW_UNSIGNED_WEBHOOKS': True,
}

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
EMAIL_HOST_USER = 'admin@example.com'
EMAIL_ENABLED = True
DEFAULT_FROM_EMAIL = 'Franchise Registrations <admin@example.com>'
PAYMENTS_ADMIN_EMAILS = ''

NOTIFICATIONS_SYNCHRONOUS = True
