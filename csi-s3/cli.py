"""
Command-line interface for the csi-s3 object storage client.
"""

import os
import sys
import logging
import argparse

import uvloop

# Add the current directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from configuration import (
    AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_REGION, S3_ENDPOINT, IAM_ROLE_ARN,
    DEFAULT_MOUNTER, SECRET_ACCESS_KEY_ID, SECRET_SECRET_ACCESS_KEY, SECRET_REGION,
    SECRET_ENDPOINT, SECRET_IAM_ROLE_ARN,
)
from common.client_factory import create_client_from_secret
from common.errors import StorageError
from persistence.fsmeta import FSMeta

# Set up logging (only if not already configured)
if not logging.root.handlers:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def secret_from_environment():
    """Build a secret bundle from the process environment."""
    return {
        SECRET_ACCESS_KEY_ID: AWS_ACCESS_KEY_ID,
        SECRET_SECRET_ACCESS_KEY: AWS_SECRET_ACCESS_KEY,
        SECRET_REGION: AWS_REGION,
        SECRET_ENDPOINT: S3_ENDPOINT,
        SECRET_IAM_ROLE_ARN: IAM_ROLE_ARN,
    }


class S3VolumeCLI:
    """CLI for provisioning and removing volume buckets and prefixes."""

    def __init__(self, secret=None):
        self.secret = secret
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description='csi-s3 volume storage CLI',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Credentials are read from S3_ENDPOINT, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY,
AWS_REGION and IAM_ROLE_ARN (with AWS_WEB_IDENTITY_TOKEN_FILE).

Examples:
  # Provision a volume as a prefix of a shared bucket
  csi-s3 create-bucket shared
  csi-s3 create-prefix shared pvc-1234
  csi-s3 set-meta shared pvc-1234 --capacity 1073741824 --mount-option=--memory-limit=1000

  # Remove the volume and everything in it
  csi-s3 remove-prefix shared pvc-1234
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        for name, help_text in (
            ('bucket-exists', 'Check whether a bucket exists'),
            ('create-bucket', 'Create a bucket in the configured region'),
            ('remove-bucket', 'Delete every object of a bucket, then the bucket'),
        ):
            sub = subparsers.add_parser(name, help=help_text)
            sub.add_argument('bucket', help='Bucket name')

        for name, help_text in (
            ('create-prefix', 'Create the directory marker of a prefix'),
            ('remove-prefix', 'Delete every object under a prefix, then its marker'),
            ('get-meta', 'Print the volume metadata stored under a prefix'),
        ):
            sub = subparsers.add_parser(name, help=help_text)
            sub.add_argument('bucket', help='Bucket name')
            sub.add_argument('prefix', help='Prefix (empty string for the bucket root)')

        meta_parser = subparsers.add_parser('set-meta', help='Store volume metadata under a prefix')
        meta_parser.add_argument('bucket', help='Bucket name')
        meta_parser.add_argument('prefix', help='Prefix (empty string for the bucket root)')
        meta_parser.add_argument('--mounter', default=DEFAULT_MOUNTER,
                                 help=f'Mounter name (default: {DEFAULT_MOUNTER})')
        meta_parser.add_argument('--mount-option', action='append', default=[], dest='mount_options',
                                 help='Mount option, may be repeated')
        meta_parser.add_argument('--capacity', type=int, default=0,
                                 help='Capacity in bytes (default: 0)')

        return parser

    async def execute(self, args):
        """Run one command against a freshly created client."""
        client = await create_client_from_secret(self.secret or secret_from_environment())

        async with client:
            if args.command == 'bucket-exists':
                exists = await client.bucket_exists(args.bucket)
                print('true' if exists else 'false')
                return 0 if exists else 1
            elif args.command == 'create-bucket':
                await client.create_bucket(args.bucket)
            elif args.command == 'create-prefix':
                await client.create_prefix(args.bucket, args.prefix)
            elif args.command == 'remove-prefix':
                report = await client.remove_prefix(args.bucket, args.prefix)
                logger.info(f"Removed {report.deleted} objects ({report.path})")
            elif args.command == 'remove-bucket':
                report = await client.remove_bucket(args.bucket)
                logger.info(f"Removed {report.deleted} objects ({report.path})")
            elif args.command == 'get-meta':
                meta = await client.get_fs_meta(args.bucket, args.prefix)
                print(meta.to_json())
            elif args.command == 'set-meta':
                await client.set_fs_meta(FSMeta(
                    bucket_name=args.bucket,
                    prefix=args.prefix,
                    mounter=args.mounter,
                    mount_options=args.mount_options,
                    capacity_bytes=args.capacity,
                ))
            else:
                logger.error(f"Unknown command: {args.command}")
                return 1
        return 0

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return uvloop.run(self.execute(parsed_args))
        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1
        except StorageError as e:
            logger.error(f"{parsed_args.command} failed: {e}")
            return 1
        except Exception as e:
            logger.error(f"Unexpected error: {e}")
            return 1


def main():
    """Main entry point."""
    cli = S3VolumeCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
