import sys

import click

from ._init import AssetNotFound


@click.group()
def main():
    """
    Manages assetpack artifacts.
    """
    pass


@main.command('build')
@click.option('-s', '--save-mapping', 'save_mapping', is_flag=True)
@click.argument('monikers', nargs=-1)
@click.pass_context
def build(clickctx, monikers, save_mapping):
    """
    Builds monikers and prints their URLs.
    """
    assetpack = clickctx.obj['conf'].load('assetpack')
    if not monikers:
        monikers = assetpack.monikers()
    for moniker in monikers:
        for url in assetpack.get(moniker):
            print('%s %s' % (moniker, url))
    if save_mapping:
        assetpack.save_mapping()


@main.command('get')
@click.option('-i', '--inline', 'inline', is_flag=True)
@click.argument('moniker')
@click.pass_context
def get(clickctx, moniker, inline):
    """
    Provides the URLs or the content of a moniker.
    """
    assetpack = clickctx.obj['conf'].load('assetpack')
    for result in assetpack.get(moniker, inline=inline):
        print(result)


@main.command('fetch')
@click.argument('url')
@click.pass_context
def fetch(clickctx, url):
    """
    Downloads a remote source and prints the local path.
    """
    assetpack = clickctx.obj['conf'].load('assetpack')
    print(assetpack.fetch(url))


@main.command('purge')
@click.option('-a', '--always', 'always', is_flag=True)
@click.pass_context
def purge(clickctx, always):
    """
    Removes artifacts no moniker points to.
    """
    assetpack = clickctx.obj['conf'].load('assetpack')
    _build_all(assetpack)
    assetpack.purge(always=always or None)


@main.command('save-mapping')
@click.pass_context
def save_mapping(clickctx):
    """
    Stores the mapping of monikers to artifacts.
    """
    assetpack = clickctx.obj['conf'].load('assetpack')
    _build_all(assetpack)
    assetpack.save_mapping()


def _build_all(assetpack):
    for moniker in assetpack.monikers():
        try:
            assetpack.get(moniker)
        except AssetNotFound as e:
            print(e, file=sys.stderr)


if __name__ == '__main__':
    main()
