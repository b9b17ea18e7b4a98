"""
Container image relocation for air-gapped and private-registry installs.

Saves the images referenced by a tree of deployment manifests into a local
bundle, then pushes the bundle into a destination registry and prints the
image mapping for manifest patching.

Architecture:
    1. `save` walks the manifest tree and extracts pod template images
    2. Each distinct image is pulled once into <bundle>/<format>/<name>/<tag>
    3. The bundle is carried into the target environment
    4. `push` walks the bundle and rewrites each name to <registry>/<namespace>/<basename>
    5. Each archive is pushed; the first failure aborts the run
    6. The old to new mapping is written as a kustomize `images:` list

Commands:
    list MANIFEST_DIR                   - Print image references without pulling
    save MANIFEST_DIR BUNDLE_DIR        - Pull images into a bundle
    push BUNDLE_DIR --registry --namespace  - Push a bundle and write the mapping
    inspect BUNDLE_DIR                  - Describe the archives in a bundle

Environment Variables:
    LOG_LEVEL, SKOPEO_BIN, TRANSFER_TIMEOUT, IMAGE_FORMAT, TRUST_POLICY,
    MAX_IMAGE_NAME_LENGTH, MAX_TAG_LENGTH

Example:
    $ python app.py save ./manifests ./bundle
    $ LOG_LEVEL=DEBUG python app.py push ./bundle --registry myregistry.io --namespace myns
"""

import argparse
import logging
import sys
import tarfile

from relocator.archive import load_archive_manifest
from relocator.bundle import enumerate_bundle
from relocator.config import config
from relocator.errors import RelocatorError
from relocator.images import list_images, save_images
from relocator.relocate import dump_mapping, relocate
from relocator.transfer import TransferEngine, TrustPolicy

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-relocator",
        description="Bundle and relocate the container images used by deployment manifests",
    )
    parser.add_argument(
        "--trust-policy",
        default=config.TRUST_POLICY,
        help='Source trust policy: "acceptAny" or a policy JSON file (default: %(default)s)',
    )
    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="print the images referenced by a manifest tree")
    list_cmd.add_argument("manifest_dir")

    save_cmd = commands.add_parser("save", help="pull every referenced image into a bundle")
    save_cmd.add_argument("manifest_dir")
    save_cmd.add_argument("bundle_dir")
    save_cmd.add_argument("--resume", action="store_true",
                          help="skip images already present in the bundle")

    push_cmd = commands.add_parser("push", help="push a bundle to a registry")
    push_cmd.add_argument("bundle_dir")
    push_cmd.add_argument("--registry", default="", help="destination registry host")
    push_cmd.add_argument("--namespace", required=True, help="destination namespace")
    push_cmd.add_argument("--output", "-o", help="write the image mapping here instead of stdout")

    inspect_cmd = commands.add_parser("inspect", help="describe the archives in a bundle")
    inspect_cmd.add_argument("bundle_dir")

    return parser


def run(args: argparse.Namespace) -> None:
    if args.command == "list":
        for image in list_images(args.manifest_dir):
            print(image)
        return

    if args.command == "inspect":
        for entry in enumerate_bundle(args.bundle_dir):
            meta = load_archive_manifest(entry.archive_path)
            print(f"{entry.reference}\t{len(meta['layers'])} layers\t{meta['total_size']} bytes")
        return

    engine = TransferEngine(policy=TrustPolicy.from_setting(args.trust_policy))
    logger.info(f"Trust policy: {engine.policy}")

    if args.command == "save":
        save_images(args.manifest_dir, args.bundle_dir, engine=engine, resume=args.resume)
        return

    if args.command == "push":
        result = relocate(args.bundle_dir, args.registry, args.namespace, engine=engine)
        if args.output:
            with open(args.output, "w") as f:
                dump_mapping(result, f)
            logger.info(f"Image mapping written to {args.output}")
        else:
            dump_mapping(result, sys.stdout)


def main(argv=None) -> int:
    """Main entry point for the image relocator."""
    configure_logging()
    args = build_parser().parse_args(argv)
    logger.debug(f"Configuration: {config}")

    try:
        run(args)
    except (RelocatorError, OSError, tarfile.TarError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
