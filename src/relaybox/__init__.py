"""


Relay Connections

- Conduit: abstraction of a bi-directional channel. Combines 2 streams for reading and writing.
  SocketConduit wraps a TCP connection to a gateway, SerialConduit a local serial port.
  The relay wraps its conduit in a SynchronizedConduit so concurrent writers never interleave frames.
- Frame: the unit exchanged with the relay. A header, the sub-device address, a function code,
  a length-prefixed payload and a checksum. FrameDecoder reassembles frames across reads.
- Relay: one sub-device behind the gateway. Owns the conduit, the middleware chain, the state store
  and the two background loops.
- ReadLoop: reads the conduit, decodes frames, passes each through the middleware chain and
  applies it to the state store.
- WriteLoop: one InquiryLoop per inquiry task. Each sends its inquiry immediately and then every
  poll interval.
- StateStore: latest output states, input states and temperature/humidity. Readers see immutable
  snapshots; only the read loop writes.


## Lifecycle

online() starts both loops, then posts the requested properties.
offline() is one-way and may be called from any thread. The first call fires the shutdown signal,
closes the conduit, and invokes the offline callback with the relay. Later calls do nothing.

Any read, decode or write error ends the loop that hit it and takes the relay offline.
Nothing is retried; the owner of the relay decides whether to create a new one.


## Threading

The caller's thread never blocks on the loops. The read loop runs on its own daemon thread, as does
each inquiry loop. The loops all watch the same ShutdownSignal. Closing the conduit unblocks a read
in progress, and inquiry loops wait on the signal between inquiries so they exit promptly.
"""
