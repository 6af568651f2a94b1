"""


Wallet Connections

- Transport: an EIP-1193 style channel to a node. request(method, params) plus named events
  (on/remove_listener/emit). Wallets inject one, HttpTransport talks JSON-RPC to a remote node.
- Provider: read access to a node over a transport. Polls the block number while anyone listens for "block".
- Connector: establishes a session with a wallet or node and returns the provider, chain id and account.
    InjectedConnector, NetworkConnector, BridgeConnector (WalletConnect, WalletLink)
- connector events - fired by a connector during its session -
    ConnectorUpdateEvent (chain, account or provider changed), ConnectorDeactivateEvent, ConnectorErrorEvent
- ConnectorRegistry: the fixed set of named connectors available to the application.
- ConnectionStateMachine: owns the ConnectionState. Activates one connector at a time and follows its
  events while active.
- Trackers: BlockHeightTracker and BalanceTracker derive values from the state by reading the provider.
- EagerConnection: reconnects on start when the injected wallet already authorized the application.
- InactiveListener: activates the injected wallet when it announces itself while nothing is connected.
- WalletSession: puts all of the above together and provides a SessionView of the session.


## Staleness

Everything runs on a single asyncio loop. Reads and activations complete some time after they were
issued, and by then the state they were issued for may be gone. Nothing is cancelled. Instead:

- the state machine starts a new session on each deactivation. An activation completing under an older
  session is discarded and its connector released.
- trackers start a new generation whenever their governing tuple changes. A read completing for an older
  generation is discarded.
- every event subscription is a Subscription held by the component that opened it, and closed when that
  component's scope ends.
"""
