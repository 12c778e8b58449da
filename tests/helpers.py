"""
Shared test data and output readers
"""

import os
import re


SCENARIO_LINES = [
    "Mary and Elvis lives in Detroit army Easter Listen",
    "silent eaters Death Hated elvis Mary easter Silent",
    "Mary and Elvis are in army Listen Silent detroit",
]

SCENARIO_EXPECTED = {
    'adeht': {'death': 1, 'hated': 1},
    'eilnst': {'silent': 3, 'listen': 2},
    'eilsv': {'lives': 1, 'elvis': 3},
    'aeerst': {'eaters': 1, 'easter': 2},
    'amry': {'army': 2, 'mary': 3},
}

RECORD_PATTERN = re.compile(r'^\((?P<key>[^,]*),\{(?P<pairs>.*)\}\)$')


def parse_record(line):
    """Parse '(key,{a=1, b=2})' back into (key, {'a': 1, 'b': 2})"""
    match = RECORD_PATTERN.match(line)
    assert match, f"Not an output record: {line!r}"
    frequencies = {}
    for pair in match.group('pairs').split(', '):
        word, count = pair.rsplit('=', 1)
        frequencies[word] = int(count)
    return match.group('key'), frequencies


def read_output(output_dir):
    """Read every part file of an output directory into {key: frequencies}"""
    results = {}
    for name in sorted(os.listdir(output_dir)):
        if not name.startswith('part-'):
            continue
        with open(os.path.join(output_dir, name), encoding='utf-8') as f:
            for line in f:
                key, frequencies = parse_record(line.rstrip('\n'))
                assert key not in results, f"Key {key} written twice"
                results[key] = frequencies
    return results
