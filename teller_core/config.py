"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings


class TellerConfig(BaseSettings):
    """Teller core configuration"""
    
    # Storage configuration
    database_path: str = ":memory:"  # SQLite file, in-memory by default
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Authorization
    admin_role_name: str = "Admin"
    
    # Password hashing (scrypt cost parameters)
    password_scrypt_n: int = 16384
    password_scrypt_r: int = 8
    password_scrypt_p: int = 1
    
    # Interest accrual
    interest_authority_name: str = "InterestOperator"
    interest_rate: str = "0.01"  # Periodic rate applied per accrual run
    interest_description: str = "Interest ..."
    
    class Config:
        env_prefix = "TELLER_"
        env_file = ".env"
        case_sensitive = False
    
    @property
    def interest_rate_decimal(self) -> Decimal:
        """Interest rate as a Decimal"""
        return Decimal(self.interest_rate)


# Global configuration instance
config = TellerConfig()


def get_config() -> TellerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> TellerConfig:
    """Reload configuration from environment"""
    global config
    config = TellerConfig()
    return config
