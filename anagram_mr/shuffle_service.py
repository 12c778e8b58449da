"""
gRPC shuffle transport.
A ShuffleServer serves intermediate files from a worker's intermediate
directory; reducers pull them with fetch_partition_file.

Payloads are raw bytes, so the service is registered through a generic
handler instead of generated protobuf stubs.
"""

import os
import logging
from concurrent import futures

import grpc

from anagram_mr.errors import ShuffleError

logger = logging.getLogger(__name__)

SERVICE_NAME = 'anagram.Shuffle'
FETCH_METHOD = f'/{SERVICE_NAME}/FetchPartition'

CHANNEL_OPTIONS = [
    ('grpc.max_send_message_length', 100 * 1024 * 1024),
    ('grpc.max_receive_message_length', 100 * 1024 * 1024),
]


class ShuffleServicer:
    """Serves files below a single root directory"""

    def __init__(self, root_dir: str):
        self.root_dir = os.path.realpath(root_dir)

    def resolve(self, file_name: str) -> str:
        """Map a requested name to a path, refusing anything outside the root"""
        path = os.path.realpath(os.path.join(self.root_dir, file_name))
        if os.path.commonpath([self.root_dir, path]) != self.root_dir or path == self.root_dir:
            raise ValueError(f"File name escapes the served directory: {file_name}")
        return path

    def FetchPartition(self, request: bytes, context: grpc.ServicerContext) -> bytes:
        """Return the contents of one intermediate file."""
        file_name = request.decode('utf-8')
        try:
            path = self.resolve(file_name)
        except ValueError as e:
            context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))

        if not os.path.isfile(path):
            context.abort(grpc.StatusCode.NOT_FOUND, f"No intermediate file {file_name}")

        with open(path, 'rb') as f:
            data = f.read()
        logger.debug(f"Served {file_name} ({len(data)} bytes)")
        return data


class ShuffleServer:
    """Runs the shuffle service on its own gRPC server"""

    def __init__(self, root_dir: str, host: str = 'localhost', port: int = 0,
                 max_workers: int = 4):
        self.servicer = ShuffleServicer(root_dir)
        self.host = host
        self.requested_port = port
        self.port = None
        self._running = False

        self.server = grpc.server(futures.ThreadPoolExecutor(max_workers=max_workers),
                                  options=CHANNEL_OPTIONS)
        handler = grpc.method_handlers_generic_handler(SERVICE_NAME, {
            'FetchPartition': grpc.unary_unary_rpc_method_handler(self.servicer.FetchPartition),
        })
        self.server.add_generic_rpc_handlers((handler,))

    @property
    def address(self) -> str:
        if self.port is None:
            raise RuntimeError("Shuffle server has not been started")
        return f"{self.host}:{self.port}"

    def start(self) -> str:
        """Bind and start serving. Port 0 picks a free port."""
        try:
            self.port = self.server.add_insecure_port(f"{self.host}:{self.requested_port}")
        except RuntimeError as e:
            raise ShuffleError(f"Could not bind shuffle server to {self.host}:{self.requested_port}: {e}") from e
        if self.port == 0:
            raise ShuffleError(f"Could not bind shuffle server to {self.host}:{self.requested_port}")
        self.server.start()
        self._running = True
        logger.info(f"Shuffle server started on {self.address}")
        return self.address

    def stop(self, grace: float = 0):
        if not self._running:
            return
        self._running = False
        self.server.stop(grace).wait()
        logger.info("Shuffle server stopped")


def fetch_partition_file(worker_address: str, file_name: str, timeout: float = 15) -> bytes:
    """
    Fetch a single intermediate file from a remote worker

    Raises:
        ShuffleError: If the worker is unreachable or does not have the file
    """
    try:
        with grpc.insecure_channel(worker_address, options=CHANNEL_OPTIONS) as channel:
            fetch = channel.unary_unary(FETCH_METHOD)
            return fetch(file_name.encode('utf-8'), timeout=timeout)
    except grpc.RpcError as e:
        logger.error(f"gRPC error fetching file {file_name} from {worker_address}: {e.details()}")
        raise ShuffleError(f"Shuffle failure from {worker_address}: {e.details()}") from e
