"""Example 01: Basic Usage - versioned keys in Consul.

This example demonstrates the fundamental operations:
- Opening a client mounted under a prefix
- create / set / cas / erase with versions
- Reading keys and listing children
- Leased (ephemeral) keys that vanish when the client closes
- Atomic multi-key transactions with Txn

Requires a Consul agent on $CONSUL_HTTP_ADDR (default 127.0.0.1:8500).
"""

from goffkv_consul import EntryExistsError, Txn, TxnFailedError, open_client


def main() -> None:
    with open_client("consul://127.0.0.1:8500/examples") as kv:
        # Step 1: Create a small tree. Parents must exist before children.
        try:
            kv.create("/service", b"")
        except EntryExistsError:
            kv.erase("/service")
            kv.create("/service", b"")
        kv.create("/service/config", b'{"replicas": 2}')
        kv.create("/service/owner", b"team-a")

        # Step 2: Read back with versions.
        ver, value, _ = kv.get("/service/config")
        print(f"config v{ver}: {value.decode()}")

        children, _ = kv.children("/service")
        print(f"children: {children}")

        # Step 3: Compare-and-swap. A stale version writes nothing and returns 0.
        new_ver = kv.cas("/service/config", b'{"replicas": 3}', ver)
        print(f"cas with v{ver} -> v{new_ver}")
        print(f"cas with stale v{ver} -> {kv.cas('/service/config', b'{}', ver)}")

        # Step 4: Leased keys live only as long as this client's session.
        kv.create("/service/instance-1", b"10.0.0.5:8080", lease=True)

        # Step 5: Transactions apply all-or-nothing.
        txn = (
            Txn()
            .check("/service/config", new_ver)
            .set("/service/owner", b"team-b")
            .create("/service/flags", b"")
        )
        for result in kv.commit(txn):
            print(f"{result.kind.value} -> v{result.version}")

        try:
            kv.commit(Txn().check("/service/config", ver).erase("/service/owner"))
        except TxnFailedError as e:
            print(f"stale check rejected at item {e.index}")

    # The leased instance key is gone once the session is destroyed.
    with open_client("consul://127.0.0.1:8500/examples") as kv:
        print(f"instance-1 exists: {kv.exists('/service/instance-1')[0] != 0}")
        kv.erase("/service")


if __name__ == "__main__":
    main()
