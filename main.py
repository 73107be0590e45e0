import marimo

__generated_with = "0.18.3"
app = marimo.App()


@app.cell
def _():
    import tempfile
    from pathlib import Path

    import ref_store as rs
    from IPython.lib.pretty import pprint
    return Path, pprint, rs, tempfile


@app.cell
def _(Path, rs, tempfile):
    remotes = {}
    workdir = Path(tempfile.mkdtemp())

    def open_storage(name):
        return (
            rs.StorageBuilder(file_name="items.txt")
            .serializer(rs.lines_serializer)
            .deserializer(rs.lines_deserializer)
            .vcs(rs.create_memory_vcs(remotes))
            .remote_repository(
                rs.NamedHostedRepository("shared"),
                "storage",
                name,
                f"{name}@example.com",
                f"Update from {name}",
            )
            .materialize(workdir / name)
        )

    a = open_storage("a")
    b = open_storage("b")
    return a, b, remotes


@app.cell
def _(a, pprint):
    a.put({"apple"})
    pprint(a)
    return


@app.cell
def _(b, pprint):
    # b has not seen "apple" yet; its push is rejected and it catches up
    b.put({"banana"})
    pprint(b)
    return


@app.cell
def _(a, pprint, remotes):
    a.refresh()
    pprint(a)
    pprint(remotes)
    return


if __name__ == "__main__":
    app.run()
