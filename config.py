"""
Configuration management for the Worry Free Moving call agent
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default):
    return os.getenv(name, default) == 'True'


class Config:
    """Base configuration"""

    # Flask Configuration
    SECRET_KEY = os.getenv('SECRET_KEY', 'call-agent-secret-key-change-in-production')
    FLASK_ENV = os.getenv('FLASK_ENV', 'production')
    FLASK_DEBUG = os.getenv('FLASK_DEBUG', 'False') == 'True'
    PORT = int(os.getenv('PORT', 5000))

    # Company Information
    COMPANY_NAME = os.getenv('COMPANY_NAME', 'Worry Free Moving')
    COMPANY_PHONE = os.getenv('COMPANY_PHONE', '330-435-8686')
    COMPANY_EMAIL = os.getenv('COMPANY_EMAIL', 'service@worryfreemovers.com')
    WEBSITE = os.getenv('WEBSITE', 'https://worryfreemovers.com')
    TRANSFER_NUMBER = os.getenv('TRANSFER_NUMBER', '+13307542648')
    BOOKING_LINK_URL = os.getenv('BOOKING_LINK_URL', 'https://worryfreemovers.com/book')
    PAYMENT_LINK_URL = os.getenv('PAYMENT_LINK_URL', 'https://square.link/u/worryfree')

    # Twilio Configuration
    TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER = os.getenv('TWILIO_PHONE_NUMBER')

    # Google APIs
    GOOGLE_MAPS_API_KEY = os.getenv('GOOGLE_MAPS_API_KEY')
    GOOGLE_SHEETS_CREDS = os.getenv('GOOGLE_SHEETS_CREDS')
    BOOKING_SHEET_ID = os.getenv('BOOKING_SHEET_ID')
    # JSON object mapping calendar name -> Google Calendar id
    GOOGLE_CALENDAR_IDS = os.getenv('GOOGLE_CALENDAR_IDS')

    # OpenAI Configuration
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
    OPENAI_TIMEOUT = float(os.getenv('OPENAI_TIMEOUT', 6))

    # Email Configuration
    EMAIL_ADDRESS = os.getenv('EMAIL_ADDRESS')
    EMAIL_PASSWORD = os.getenv('EMAIL_PASSWORD')
    SMTP_SERVER = os.getenv('SMTP_SERVER', 'smtp.gmail.com')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))
    SMTP_TIMEOUT = float(os.getenv('SMTP_TIMEOUT', 10))
    MANAGER_EMAIL = os.getenv('MANAGER_EMAIL', 'service@worryfreemovers.com')
    OFFICE_EMAIL = os.getenv('OFFICE_EMAIL', 'service@worryfreemovers.com')

    # Pricing Configuration: full-service moving (movers + truck)
    FULL_SERVICE_BASE_RATE = float(os.getenv('FULL_SERVICE_BASE_RATE', 192.50))
    FULL_SERVICE_DISTANCE_RATE = float(os.getenv('FULL_SERVICE_DISTANCE_RATE', 0.75))
    FULL_SERVICE_CREW_RATE = float(os.getenv('FULL_SERVICE_CREW_RATE', 55))
    FULL_SERVICE_CHARGE_RATE = float(os.getenv('FULL_SERVICE_CHARGE_RATE', 0.14))

    # Pricing Configuration: labor only
    LABOR_ONLY_BASE_RATE = float(os.getenv('LABOR_ONLY_BASE_RATE', 115))
    LABOR_ONLY_DISTANCE_RATE = float(os.getenv('LABOR_ONLY_DISTANCE_RATE', 0.50))
    LABOR_ONLY_CREW_RATE = float(os.getenv('LABOR_ONLY_CREW_RATE', 40))
    LABOR_ONLY_TRAVEL_RATE = float(os.getenv('LABOR_ONLY_TRAVEL_RATE', 1.60))
    LABOR_ONLY_CHARGE_RATE = float(os.getenv('LABOR_ONLY_CHARGE_RATE', 0.08))

    # Add-on fees
    STAIRS_FEE_HOUSE = float(os.getenv('STAIRS_FEE_HOUSE', 25))
    STAIRS_FEE_APARTMENT = float(os.getenv('STAIRS_FEE_APARTMENT', 40))
    APPLIANCE_FEE = float(os.getenv('APPLIANCE_FEE', 25))
    PACKING_FEE = float(os.getenv('PACKING_FEE', 50))

    # Scheduling
    BUSINESS_TIMEZONE = os.getenv('BUSINESS_TIMEZONE', 'America/New_York')
    BOOKING_HORIZON_DAYS = int(os.getenv('BOOKING_HORIZON_DAYS', 90))
    MAIN_CALENDAR = os.getenv('MAIN_CALENDAR', 'worry-free-moving')
    LABOR_CALENDAR = os.getenv('LABOR_CALENDAR', 'quality-moving')
    INTERNAL_CALENDAR = os.getenv('INTERNAL_CALENDAR', 'internal')

    # Call flow
    MAX_STAGE_RETRIES = int(os.getenv('MAX_STAGE_RETRIES', 2))
    MAX_SLOT_RETRIES = int(os.getenv('MAX_SLOT_RETRIES', 2))
    SESSION_IDLE_MINUTES = int(os.getenv('SESSION_IDLE_MINUTES', 15))
    DISTANCE_TIMEOUT = float(os.getenv('DISTANCE_TIMEOUT', 5))

    # Feature Flags
    ENABLE_SMS_NOTIFICATIONS = _flag('ENABLE_SMS_NOTIFICATIONS', 'True')
    ENABLE_EMAIL_NOTIFICATIONS = _flag('ENABLE_EMAIL_NOTIFICATIONS', 'True')
    ENABLE_TRANSCRIPT_EMAIL = _flag('ENABLE_TRANSCRIPT_EMAIL', 'True')
    USE_QUALITY_MOVING = _flag('USE_QUALITY_MOVING', 'False')

    # Voice Settings
    VOICE_NAME = os.getenv('VOICE_NAME', 'Polly.Joanna')
    SPEECH_LANGUAGE = os.getenv('TWILIO_SPEECH_LANGUAGE', 'en-US')
    SPEECH_MODEL = os.getenv('TWILIO_SPEECH_MODEL', 'phone_call')
    SPEECH_ENHANCED = os.getenv('TWILIO_SPEECH_ENHANCED', 'true').lower() == 'true'
    SPEECH_HINTS = os.getenv(
        'TWILIO_SPEECH_HINTS',
        'quote,book,movers and truck,labor only,house,apartment,condo,townhouse,studio,'
        'yes,no,morning,afternoon,piano,pool table,hot tub,safe,washer,dryer,refrigerator'
    )

    @staticmethod
    def validate_config():
        """Validate that all required configuration is present"""
        required_vars = [
            'TWILIO_ACCOUNT_SID',
            'TWILIO_AUTH_TOKEN',
            'TWILIO_PHONE_NUMBER',
            'GOOGLE_MAPS_API_KEY',
            'GOOGLE_SHEETS_CREDS',
            'BOOKING_SHEET_ID',
            'OPENAI_API_KEY',
        ]

        missing_vars = []
        for var in required_vars:
            if not os.getenv(var):
                missing_vars.append(var)

        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")

        return True


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    FLASK_ENV = 'development'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    FLASK_ENV = 'production'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True
    ENABLE_SMS_NOTIFICATIONS = False
    ENABLE_EMAIL_NOTIFICATIONS = False
    GOOGLE_SHEETS_CREDS = None
    BOOKING_SHEET_ID = None
    GOOGLE_CALENDAR_IDS = None
    GOOGLE_MAPS_API_KEY = None
    OPENAI_API_KEY = None


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(env=None):
    """Get configuration based on environment"""
    if env is None:
        env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
