from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, model_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Gestor Ledger API"
    ENV: str = Field(default="lab", validation_alias=AliasChoices("LEDGER_ENV","ENV"))  # lab|prod
    DATABASE_URL: str = Field(default="sqlite:///./lab.db", validation_alias=AliasChoices("LEDGER_DATABASE_URL","DATABASE_URL"))
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("LEDGER_LOG_LEVEL","LOG_LEVEL"))

    # Auth (JWT)
    AUTH_PROTECT_DOCS: bool = Field(default=False, validation_alias=AliasChoices("LEDGER_AUTH_PROTECT_DOCS","AUTH_PROTECT_DOCS"))
    AUTH_JWT_SECRET: str = Field(default="", validation_alias=AliasChoices("LEDGER_AUTH_JWT_SECRET","AUTH_JWT_SECRET","JWT_SECRET"))
    AUTH_JWT_TTL_MIN: int = Field(default=60, validation_alias=AliasChoices("LEDGER_AUTH_JWT_TTL_MIN","AUTH_JWT_TTL_MIN"))

    # Liquidação de vendas (parcelas / entrada)
    LEDGER_INSTALLMENT_INTERVAL_DAYS: int = 30
    # fração de "produto" quando o subtotal da venda é zero (resto vai p/ serviço)
    LEDGER_ZERO_SUBTOTAL_PRODUCT_RATIO: float = 0.5
    # formas de pagamento liquidadas na hora (à vista)
    LEDGER_IMMEDIATE_PAYMENT_METHODS: str = "dinheiro,pix"

    BUILD_SHA: str = Field(default="", validation_alias=AliasChoices("LEDGER_BUILD_SHA","BUILD_SHA","GITHUB_SHA"))

    @property
    def immediate_payment_methods(self) -> tuple[str, ...]:
        return tuple(m.strip().lower() for m in self.LEDGER_IMMEDIATE_PAYMENT_METHODS.split(",") if m.strip())

    @model_validator(mode="after")
    def _invariants(self):
        # Fail-fast (contrato de settings)
        if self.ENV not in ("lab", "prod"):
            raise ValueError("ENV inválido (use: lab | prod)")

        sec = (self.AUTH_JWT_SECRET or "").strip()
        if self.ENV == "prod":
            if not sec:
                raise ValueError("SECURITY: AUTH_JWT_SECRET vazio (obrigatório em ENV=prod)")
            if len(sec) < 32:
                raise ValueError("SECURITY: AUTH_JWT_SECRET curto (min 32 chars)")
        # normaliza (remove espaços acidentais)
        self.AUTH_JWT_SECRET = sec

        if self.LEDGER_INSTALLMENT_INTERVAL_DAYS < 1:
            raise ValueError("LEDGER_INSTALLMENT_INTERVAL_DAYS deve ser >= 1")
        if not 0.0 <= self.LEDGER_ZERO_SUBTOTAL_PRODUCT_RATIO <= 1.0:
            raise ValueError("LEDGER_ZERO_SUBTOTAL_PRODUCT_RATIO deve estar entre 0 e 1")

        return self

settings = Settings()
