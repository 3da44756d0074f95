from lambdaship.errors import LambdashipError
from lambdaship.services import deployer
import argparse
import logging
import sys


# run pip install -e .
# then do your thing
def _fail(message: str) -> None:
    print(message, file=sys.stderr)
    sys.exit(1)


def deploy_function(args):
    """
    package the handler and deploy it as a lambda function
    """
    try:
        result = deployer.deploy(
            args.name,
            args.path,
            managed_policies=args.managed_policies,
            inline_policy=args.inline_policy,
            resource_policy=args.resource_policy,
        )
    except LambdashipError as e:
        _fail(f"An error occurred deploying {args.name}: {e}")
        return
    print(f"Deployed {result.name} successfully (version {result.version})")


def delete_function(args):
    try:
        deployer.delete(args.name)
    except LambdashipError as e:
        _fail(f"An error occurred deleting {args.name}: {e}")
        return
    print(f"Deleted {args.name}")


def package_function(args):
    """
    build the handler into a zip ready to upload, without touching AWS
    """
    try:
        with open(args.output, 'wb') as f:
            deployer.package(args.path, f)
    except (LambdashipError, OSError) as e:
        _fail(f"An error occurred packaging {args.path}: {e}")
        return
    print(f"File successfully written to {args.output}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='lambdaship',
        description='A tool for deploying Go binaries as AWS Lambda functions.'
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Log every deployment phase'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        help='Available commands'
    )

    deploy_parser = subparsers.add_parser(
        'deploy',
        help='Package a Go binary and upload it as a lambda function'
    )
    deploy_parser.add_argument('name', help='Lambda function name')
    deploy_parser.add_argument('path', help='Path to the Go handler source')
    deploy_parser.add_argument(
        '--managed-policies',
        default='',
        help='Comma separated managed policy names or ARNs to attach to the execution role'
    )
    deploy_parser.add_argument(
        '--inline-policy',
        default='',
        help='Inline policy JSON to put on the execution role'
    )
    deploy_parser.add_argument(
        '--resource-policy',
        default='',
        help='Resource policy JSON granting others permission to invoke the function'
    )
    deploy_parser.set_defaults(func=deploy_function)

    delete_parser = subparsers.add_parser(
        'delete',
        help='Delete a lambda function and its execution role'
    )
    delete_parser.add_argument('name', help='Lambda function name')
    delete_parser.set_defaults(func=delete_function)

    package_parser = subparsers.add_parser(
        'package',
        help="Package a Go binary as a ZIP'd bundle ready to upload to AWS"
    )
    package_parser.add_argument('path', help='Path to the Go handler source')
    package_parser.add_argument(
        '--output',
        '-o',
        default='bootstrap.zip',
        help='Output file name (default: bootstrap.zip)'
    )
    package_parser.set_defaults(func=package_function)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO if getattr(args, 'verbose', False) else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )

    # execute the passed function
    args.func(args)


if __name__ == '__main__':
    main()
