"""
Tests for the shuffle phase: partition routing, grouping and the gRPC transport
"""

import os
import json
import pytest

from anagram_mr.errors import ShuffleError
from anagram_mr.line_source import TextLineSource
from anagram_mr.map_executor import MapExecutor, MapResult, PartitionLocation, partition_for
from anagram_mr.shuffle import collect_locations, group_partition, read_location
from anagram_mr.shuffle_service import ShuffleServer, fetch_partition_file


def write_file(root, file_name, lines):
    path = os.path.join(root, file_name)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        for line in lines:
            f.write(line + '\n')
    return path


def record(key, value):
    return json.dumps({'key': key, 'value': value})


@pytest.fixture
def intermediate_root(temp_dir):
    root = os.path.join(temp_dir, 'intermediate')
    os.makedirs(root)
    return root


@pytest.fixture
def shuffle_server(intermediate_root):
    server = ShuffleServer(intermediate_root, host='localhost', port=0)
    server.start()
    yield server
    server.stop()


class TestCollectLocations:
    """Tests for assembling reducer inputs after the map barrier"""

    def test_groups_locations_by_partition(self):
        results = [
            MapResult(0, [PartitionLocation(0, 'j/map-0-reduce-0.txt'),
                          PartitionLocation(1, 'j/map-0-reduce-1.txt')]),
            MapResult(1, [PartitionLocation(1, 'j/map-1-reduce-1.txt', 'worker-2:50052')]),
        ]
        locations = collect_locations(results, 3)

        assert [loc.file_name for loc in locations[0]] == ['j/map-0-reduce-0.txt']
        assert sorted(loc.file_name for loc in locations[1]) == [
            'j/map-0-reduce-1.txt', 'j/map-1-reduce-1.txt'
        ]
        assert locations[2] == []

    def test_unknown_partition_is_an_error(self):
        results = [MapResult(0, [PartitionLocation(5, 'j/map-0-reduce-5.txt')])]
        with pytest.raises(ShuffleError):
            collect_locations(results, 2)


class TestGroupPartition:
    """Tests for the per-partition group-by"""

    def test_groups_across_files(self, intermediate_root):
        write_file(intermediate_root, 'j/map-0-reduce-0.txt',
                   [record('amry', 'mary'), record('eilnst', 'listen')])
        write_file(intermediate_root, 'j/map-1-reduce-0.txt',
                   [record('amry', 'army'), '', record('amry', 'mary')])
        locations = [PartitionLocation(0, 'j/map-0-reduce-0.txt'),
                     PartitionLocation(0, 'j/map-1-reduce-0.txt')]

        groups = group_partition(locations, intermediate_root)

        assert sorted(groups['amry']) == ['army', 'mary', 'mary']
        assert groups['eilnst'] == ['listen']

    def test_order_of_files_does_not_matter(self, intermediate_root):
        write_file(intermediate_root, 'a.txt', [record('k', 'x'), record('k', 'y')])
        write_file(intermediate_root, 'b.txt', [record('k', 'y'), record('q', 'z')])
        forward = [PartitionLocation(0, 'a.txt'), PartitionLocation(0, 'b.txt')]

        one = group_partition(forward, intermediate_root)
        two = group_partition(list(reversed(forward)), intermediate_root)

        assert {k: sorted(v) for k, v in one.items()} == {k: sorted(v) for k, v in two.items()}

    def test_malformed_record_fails_whole_partition(self, intermediate_root):
        write_file(intermediate_root, 'bad.txt', [record('k', 'x'), 'not json'])
        with pytest.raises(ShuffleError):
            group_partition([PartitionLocation(0, 'bad.txt')], intermediate_root)

    def test_record_missing_fields_fails(self, intermediate_root):
        write_file(intermediate_root, 'bad.txt', [json.dumps({'key': 'k'})])
        with pytest.raises(ShuffleError):
            group_partition([PartitionLocation(0, 'bad.txt')], intermediate_root)

    def test_missing_file_fails(self, intermediate_root):
        with pytest.raises(ShuffleError):
            read_location(PartitionLocation(0, 'nope.txt'), intermediate_root)

    def test_equal_keys_meet_across_map_tasks(self, context, temp_dir):
        path = os.path.join(temp_dir, 'two-lines.txt')
        with open(path, 'w') as f:
            f.write('listen\nsilent\n')
        source = TextLineSource(path)
        first, second = source.splits(2)

        results = [MapExecutor(context, 'job', split, source, 3, 5).execute()
                   for split in (first, second)]

        assert [r.lines_read for r in results] == [1, 1]
        (loc_a,), (loc_b,) = [r.locations for r in results]
        assert loc_a.partition_id == loc_b.partition_id == partition_for('eilnst', 5)
        assert loc_a.file_name == f'job/map-0-reduce-{loc_a.partition_id}.txt'
        assert loc_b.file_name == f'job/map-1-reduce-{loc_b.partition_id}.txt'

        grouped = group_partition(collect_locations(results, 5)[loc_a.partition_id],
                                  context.intermediate_root)
        assert grouped == {'eilnst': ['listen', 'silent']}


class TestGrpcShuffle:
    """Tests for fetching intermediate files over gRPC"""

    def test_fetch_returns_file_bytes(self, intermediate_root, shuffle_server):
        write_file(intermediate_root, 'j/map-0-reduce-0.txt', [record('amry', 'mary')])

        data = fetch_partition_file(shuffle_server.address, 'j/map-0-reduce-0.txt')

        assert data == (record('amry', 'mary') + '\n').encode('utf-8')

    def test_missing_file_raises_shuffle_error(self, shuffle_server):
        with pytest.raises(ShuffleError):
            fetch_partition_file(shuffle_server.address, 'j/absent.txt')

    def test_path_outside_root_is_refused(self, temp_dir, shuffle_server):
        write_file(temp_dir, 'secret.txt', ['top secret'])
        with pytest.raises(ShuffleError):
            fetch_partition_file(shuffle_server.address, '../secret.txt')

    def test_unreachable_worker_raises_shuffle_error(self, shuffle_server):
        address = shuffle_server.address
        shuffle_server.stop()
        with pytest.raises(ShuffleError):
            fetch_partition_file(address, 'anything.txt', timeout=2)

    def test_group_partition_over_grpc(self, intermediate_root, shuffle_server):
        write_file(intermediate_root, 'j/map-0-reduce-0.txt',
                   [record('adeht', 'death'), record('adeht', 'hated')])
        location = PartitionLocation(0, 'j/map-0-reduce-0.txt', shuffle_server.address)

        # Remote locations never touch the local root
        groups = group_partition([location], '/nonexistent')

        assert sorted(groups['adeht']) == ['death', 'hated']
