"""
vmasm - Register VM Assembler Command-Line Interface
====================================================

This module implements the command-line interface for the register VM
assembler.

Usage Examples
--------------
Basic assembly:
    $ vmasm countdown.asm countdown.bin

Generate listing and symbol files:
    $ vmasm countdown.asm countdown.bin -l countdown.lst -s countdown.sym

With defines:
    $ vmasm -D BUFFER=0x400 -D DEBUG program.asm program.bin

Verbose mode:
    $ vmasm -v countdown.asm countdown.bin

The output file is only written when the whole source assembles without
error.
"""

import logging
from pathlib import Path
from typing import Optional

import click

from vmasm import __version__
from vmasm.assembler import Assembler
from vmasm.cli.errors import handle_cli_exception


def parse_define(defn: str) -> tuple[str, int]:
    """
    Parse a -D option value.

    Accepts NAME=VALUE with a decimal or 0x-prefixed hex value, or a bare
    NAME which defines the symbol as 1.

    Raises:
        click.BadParameter: If the name or value is invalid
    """
    if "=" not in defn:
        name, value = defn.strip(), 1
    else:
        name, value_str = defn.split("=", 1)
        name = name.strip()
        value_str = value_str.strip()
        try:
            if value_str.startswith("0x") or value_str.startswith("0X"):
                value = int(value_str[2:], 16)
            else:
                value = int(value_str)
        except ValueError:
            raise click.BadParameter(f"invalid value in -D {defn}")

    if not name:
        raise click.BadParameter(f"missing name in -D {defn}")
    return name, value


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.argument(
    "output_file",
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "-l", "--listing",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate listing file",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate symbol file",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define symbol (format: NAME=VALUE)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="vmasm")
def main(
    input_file: Path,
    output_file: Path,
    listing: Optional[Path],
    symbols: Optional[Path],
    define: tuple[str, ...],
    verbose: bool,
) -> None:
    """
    Assemble register VM source code.

    INPUT_FILE is the assembly source file to assemble. OUTPUT_FILE
    receives the program image: a 4-byte little-endian code length
    followed by the code.

    \b
    Examples:
        vmasm prog.asm prog.bin              # Assemble
        vmasm prog.asm prog.bin -l prog.lst  # Also write a listing
        vmasm -D SIZE=64 prog.asm prog.bin   # Define symbol
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")

    try:
        defines = dict(parse_define(defn) for defn in define)
    except click.BadParameter as e:
        handle_cli_exception(e, verbose=verbose)

    asm = Assembler(verbose=verbose, defines=defines)

    try:
        if verbose:
            click.echo(f"Assembling {input_file}...")

        asm.assemble_file(input_file)

        if listing:
            asm.write_listing(listing)
            if verbose:
                click.echo(f"Wrote listing to {listing}")
        if symbols:
            asm.write_symbols(symbols)
            if verbose:
                click.echo(f"Wrote symbols to {symbols}")

        # The program image is written after every auxiliary file
        asm.write_binary(output_file)

        click.echo(f"Assembled {len(asm.get_code())} bytes to {output_file}")

        if verbose:
            click.echo(f"Defined {len(asm.get_symbols())} symbols")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


if __name__ == "__main__":
    main()
