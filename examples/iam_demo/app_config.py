from iam_verification import (
    AuthExtension,
    BearerExtractor,
    IamConfig,
    TokenValidator,
    configure_logging,
)

configure_logging("info")

# IAM_SERVER_URL, IAM_CLIENT_ID and friends, from the environment or .env
IAM_CONFIG = IamConfig.from_env()

validator = TokenValidator()
# auth will be the ext imported in the Flask app
auth = AuthExtension(validator=validator, config=IAM_CONFIG, extractor=BearerExtractor())
