from solana_verify.cli.main import run

run()
