"""Run the S3 Explorer API server: ``python -m s3explorer``."""

from s3explorer.web.app import main

if __name__ == "__main__":
    main()
