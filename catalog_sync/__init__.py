from dotenv import load_dotenv

# Load environment variables from .env file so LOG_LEVEL and friends reach os.environ
load_dotenv()
