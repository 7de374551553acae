from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    SECRET_KEY=(str, 'dev-secret-key'),
    LOG_LEVEL=(str, 'INFO'),
    TECHNIQUE_TREE_CACHE_TTL=(int, 3600),
    TECHNIQUE_CASCADE_DESCENDANTS=(bool, False),
    TECHNIQUE_DEFAULT_STATUS=(str, 'pending'),
    WIKI_ADMIN_TOKEN=(str, ''),
    SUBMISSION_RATE_LIMIT=(int, 5),
    SUBMISSION_RATE_WINDOW=(int, 60),
)

env_file = BASE_DIR.parent / '.env'
if env_file.exists():
    environ.Env.read_env(env_file)

SECRET_KEY = env('SECRET_KEY')
DEBUG = env('DEBUG')
ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=['localhost', '127.0.0.1', '0.0.0.0', 'testserver'])
CSRF_TRUSTED_ORIGINS = env.list('CSRF_TRUSTED_ORIGINS', default=[])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'techniques.apps.TechniquesConfig',
    'api.apps.ApiConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'wiki_site.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'wiki_site.wsgi.application'
ASGI_APPLICATION = 'wiki_site.asgi.application'

DATABASES = {
    'default': env.db('DATABASE_URL', default=f'sqlite:///{BASE_DIR / "db.sqlite3"}'),
}

CACHES = {
    'default': env.cache('CACHE_URL', default='locmemcache://technique-wiki'),
}

LANGUAGE_CODE = 'ko-kr'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'techniques': {
            'handlers': ['console'],
            'level': env('LOG_LEVEL'),
            'propagate': False,
        },
        'api': {
            'handlers': ['console'],
            'level': env('LOG_LEVEL'),
            'propagate': False,
        },
    },
}

WIKI_ADMIN_TOKEN = env('WIKI_ADMIN_TOKEN')

TECHNIQUE_HIERARCHY = {
    'TREE_CACHE_TTL': env('TECHNIQUE_TREE_CACHE_TTL'),
    'CASCADE_DESCENDANTS': env('TECHNIQUE_CASCADE_DESCENDANTS'),
    'DEFAULT_STATUS': env('TECHNIQUE_DEFAULT_STATUS'),
    'SUBMISSION_RATE_LIMIT': env('SUBMISSION_RATE_LIMIT'),
    'SUBMISSION_RATE_WINDOW': env('SUBMISSION_RATE_WINDOW'),
}
