#!/usr/bin/env python3
"""
Generate benchmark input files by replicating the anagram sample corpus to different sizes.
"""

import argparse
from pathlib import Path

# Configuration
SHARED_DIR = Path("shared")
SAMPLES_DIR = SHARED_DIR / "samples"
INPUT_DIR = SHARED_DIR / "input"
SOURCE_FILE = SAMPLES_DIR / "anagrams.txt"

# Target sizes (approximate)
TARGETS = [
    ("anagrams_medium.txt", 1 * 1024 * 1024),     # ~1MB
    ("anagrams_large.txt", 10 * 1024 * 1024),     # ~10MB
    ("anagrams_xlarge.txt", 50 * 1024 * 1024),    # ~50MB
]


def generate_file(output_path: Path, target_size: int, source_content: bytes) -> int:
    """
    Generate a file by replicating whole lines of the source until target size is reached.

    Args:
        output_path: Path where the output file should be written
        target_size: Target file size in bytes
        source_content: The content to replicate

    Returns:
        Size of the written file in bytes
    """
    if not source_content:
        raise ValueError("Source file is empty!")
    if not source_content.endswith(b"\n"):
        source_content += b"\n"

    replications = max(1, target_size // len(source_content))
    with open(output_path, 'wb') as f:
        for _ in range(replications):
            f.write(source_content)

    actual_size = output_path.stat().st_size
    print(f"  Created: {output_path.name} ({actual_size / (1024*1024):.2f} MB, {replications} replications)")
    return actual_size


def main(argv=None) -> int:
    """Generate all benchmark input files."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--source', type=Path, default=SOURCE_FILE)
    parser.add_argument('--output-dir', type=Path, default=INPUT_DIR)
    parser.add_argument('--force', action='store_true', help='Regenerate files that already exist')
    args = parser.parse_args(argv)

    if not args.source.exists():
        print(f"Source file not found: {args.source}")
        return 1

    args.output_dir.mkdir(parents=True, exist_ok=True)
    source_content = args.source.read_bytes()
    print(f"Source file: {args.source} ({len(source_content)} bytes)")

    total_size = 0
    for filename, target_size in TARGETS:
        output_path = args.output_dir / filename

        # Skip if file already exists and is approximately the right size
        if output_path.exists() and not args.force:
            existing_size = output_path.stat().st_size
            if abs(existing_size - target_size) < target_size * 0.1:
                print(f"  Skipping {filename} (already exists, {existing_size / (1024*1024):.2f} MB)")
                total_size += existing_size
                continue

        try:
            total_size += generate_file(output_path, target_size, source_content)
        except (OSError, ValueError) as e:
            print(f"  Error generating {filename}: {e}")
            return 1

    print(f"Generation complete: {total_size / (1024*1024):.2f} MB in {args.output_dir}")
    return 0


if __name__ == "__main__":
    exit(main())
