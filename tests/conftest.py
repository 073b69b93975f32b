import socket
import threading

import matplotlib
import pytest

from tcpping.catcher import Catcher
from tcpping.config import CatcherConfig

matplotlib.use('Agg')


@pytest.fixture
def catcher():
    """A catcher listening on an ephemeral loopback port, serving in a thread"""
    c = Catcher(CatcherConfig(bind='127.0.0.1', port=0))
    c.bind()
    address = c.address
    result = {}

    def run():
        try:
            result['echoed'] = c.serve()
        except Exception as e:
            result['error'] = e

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    c.addr = address
    c.result = result
    c.thread = thread
    yield c
    if thread.is_alive():
        # unblock an accept() nobody answered
        try:
            socket.create_connection(address, timeout=1).close()
        except OSError:
            pass
    thread.join(timeout=5)
    c.server_sock.close()
