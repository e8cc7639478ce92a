#!/usr/bin/env python3
"""
CLI interface for the crypto trading bot.
Usage: python trade.py --strategy RSI_EMA_Confluence --backtest --start 2024-01-01 --end 2024-03-31
"""
import argparse
import dataclasses
import json
import logging
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Tuple

import pandas as pd

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from backtest.engine import BacktestEngine, BacktestResult
from config.manager import ConfigManager, Settings, StrategyConfig
from core import split_symbol
from data.history import HistoricalDataSource, JsonFileDataSource
from data.kraken import KrakenDataSource
from errors import TradingError
from execution import PaperExecution
from ledger import Ledger
from monitor import PositionMonitor
from risk import RiskGate
from strategies import get_strategy, get_strategy_class, list_strategies


INTERVAL_SECONDS = {
    "1m": 60, "5m": 300, "15m": 900, "30m": 1800,
    "1h": 3600, "4h": 14400, "1d": 86400, "1w": 604800
}


def parse_duration(duration_str: str) -> int:
    """Parse duration string like '90d', '6m', '1y' into days."""
    unit = duration_str[-1].lower()
    value = int(duration_str[:-1])

    if unit == 'd':
        return value
    elif unit == 'm':
        return value * 30
    elif unit == 'y':
        return value * 365
    else:
        raise ValueError(f"Invalid duration format: {duration_str}")


def resolve_range(args) -> Tuple[str, str]:
    """Date range from --start/--end, falling back to --duration before the end."""
    end = args.end or datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    if args.start:
        return args.start, end
    end_dt = pd.Timestamp(end)
    start_dt = end_dt - timedelta(days=parse_duration(args.duration))
    return start_dt.isoformat(), end


def load_settings(args) -> Settings:
    settings = Settings.load(args.config)
    if args.capital is not None:
        settings = dataclasses.replace(
            settings,
            backtest=dataclasses.replace(settings.backtest, initial_capital=args.capital)
        )
    return settings


def load_strategy_config(args) -> Tuple[str, StrategyConfig]:
    """Registered strategy name and its config, creating defaults when missing."""
    strategy_name = get_strategy_class(args.strategy).name
    key = strategy_name.lower()

    config_manager = ConfigManager(args.config_dir)
    config = config_manager.get(key)

    if not config:
        print(f"❌ Config not found for {strategy_name}")
        print("Creating default configs...")
        config_manager.create_default_configs()
        config = config_manager.get(key)

    return strategy_name, config


def save_results(result: BacktestResult, output: str) -> None:
    """Write the result JSON plus trades and equity curve CSVs next to it."""
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        json.dump(result.to_dict(), f, indent=2, allow_nan=False)

    # Save trades CSV
    rows = []
    for t in result.trades:
        row = t.to_dict()
        metadata = row.pop("metadata")
        row["strategy"] = metadata.get("strategy")
        row["kind"] = metadata.get("kind")
        rows.append(row)
    trades_df = pd.DataFrame(rows, columns=[
        "id", "symbol", "side", "type", "amount", "price", "status",
        "timestamp", "fee", "strategy", "kind"
    ])
    trades_path = output_path.with_suffix('.trades.csv')
    trades_df.to_csv(trades_path, index=False)

    # Save equity curve
    equity_df = pd.DataFrame([p.to_dict() for p in result.equity_curve], columns=["timestamp", "balance"])
    equity_df["datetime"] = pd.to_datetime(equity_df["timestamp"], unit="ms", utc=True)
    equity_path = output_path.with_suffix('.equity.csv')
    equity_df.to_csv(equity_path, index=False)

    print(f"📁 Results saved to {output_path}")
    print(f"📁 Trades saved to {trades_path}")
    print(f"📁 Equity curve saved to {equity_path}")


def cmd_backtest(args) -> BacktestResult:
    """Run backtest for a strategy."""
    print(f"🔄 Loading strategy: {args.strategy}")
    settings = load_settings(args)
    strategy_name, config = load_strategy_config(args)
    symbol = args.symbol or settings.symbols[0]
    timeframe = args.timeframe or settings.timeframe
    start, end = resolve_range(args)

    if args.source == "kraken":
        data_source: HistoricalDataSource = KrakenDataSource()
    else:
        data_source = JsonFileDataSource(args.data_dir or settings.backtest.data_dir)

    print(f"📊 Loading {symbol} {timeframe} candles from {start} to {end}...")
    engine = BacktestEngine(data_source, settings.risk, settings.backtest)
    engine.initialize(symbol, timeframe, strategy_name, config, start, end)
    print(f"✅ Loaded {len(engine.candles)} candles")

    # Run backtest
    print("🚀 Running backtest...")
    result = engine.run()

    # Print results
    print(result.summary())

    if args.output:
        save_results(result, args.output)

    return result


def cmd_paper_trade(args) -> None:
    """Run paper trading mode against live Kraken prices."""
    settings = load_settings(args)
    strategy_name, config = load_strategy_config(args)
    symbol = args.symbol or settings.symbols[0]
    timeframe = args.timeframe or settings.timeframe

    print("📝 Starting paper trading mode")
    print(f"Strategy: {strategy_name}")
    print(f"Symbol: {symbol}")
    print(f"Interval: {timeframe}")
    print("Press Ctrl+C to stop\n")

    data_source = KrakenDataSource()
    risk_gate = RiskGate(settings.risk)
    quote = split_symbol(symbol, settings.backtest.quote_asset)[1]
    ledger = Ledger.seeded(settings.backtest.initial_capital, quote)
    monitor = PositionMonitor(risk_gate)
    execution = PaperExecution(
        ledger,
        risk_gate,
        data_source.get_current_price,
        fee_rate=settings.backtest.fee_rate,
        quote_asset=quote,
    )

    # The newest Kraken candle is still forming, so only closed ones are used
    history = data_source.fetch_ohlcv(symbol, interval=timeframe)[:-1]
    strategy = get_strategy(strategy_name, symbol, config, execution, monitor, warmup=history)
    strategy.initialize()
    last_seen = history[-1].timestamp if history else 0
    current_price = None

    try:
        while True:
            current_price = data_source.get_current_price(symbol)
            monitor.exit_if_triggered(symbol, current_price, execution, strategy.name)

            closed = data_source.fetch_ohlcv(symbol, interval=timeframe, since=last_seen)[:-1]
            for candle in closed:
                if candle.timestamp > last_seen:
                    strategy.run(candle)
                    last_seen = candle.timestamp

            position = monitor.get(symbol)
            print(f"\r[{datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S}] Price: ${current_price:,.2f} | "
                  f"Position: {position.side.value if position else 'flat':>5} | "
                  f"{quote}: {ledger.balance(quote):,.2f} | "
                  f"Trades: {len(execution.trades)}", end="")

            time.sleep(INTERVAL_SECONDS.get(timeframe, 3600))

    except KeyboardInterrupt:
        print("\n\n🛑 Paper trading stopped")
        print("\nFinal Summary:")
        print(f"  Initial Capital: ${settings.backtest.initial_capital:,.2f}")
        print(f"  Final {quote}: ${ledger.balance(quote):,.2f}")
        print(f"  Balances: {ledger.snapshot()}")
        print(f"  Total Trades: {len(execution.trades)}")

        prices = {symbol: current_price} if current_price else {}
        unrealized = ledger.unrealized_pnl(prices, quote)
        valuation = ledger.valuation(prices, quote)
        if prices:
            print(f"  Unrealized P&L: ${unrealized:+,.2f}")
            print(f"  Portfolio Value: ${valuation:,.2f}")

        open_positions = []
        for position in monitor.open_positions():
            entry = position.to_dict()
            line = f"  Open: {position.side.value} {position.amount:.8f} {position.symbol} @ {position.entry_price:,.2f}"
            if position.symbol in prices:
                entry["unrealized_pnl"] = position.unrealized_pnl(prices[position.symbol])
                line += f" (P&L ${entry['unrealized_pnl']:+,.2f})"
            print(line)
            open_positions.append(entry)

        if args.output:
            with open(args.output, 'w') as f:
                json.dump({
                    "balances": ledger.snapshot(),
                    "last_prices": prices,
                    "unrealized_pnl": unrealized,
                    "portfolio_value": valuation,
                    "trades": [t.to_dict() for t in execution.trades],
                    "open_positions": open_positions,
                }, f, indent=2)
            print(f"\n📁 Paper trading state saved to {args.output}")


def cmd_fetch(args) -> None:
    """Download Kraken candles into the JSON data directory."""
    settings = load_settings(args)
    symbol = args.symbol or settings.symbols[0]
    timeframe = args.timeframe or settings.timeframe
    start, end = resolve_range(args)

    print(f"📈 Fetching {symbol} {timeframe} candles from {start} to {end}...")
    candles = KrakenDataSource().load(symbol, timeframe, start, end)
    path = JsonFileDataSource(args.data_dir or settings.backtest.data_dir).save(symbol, timeframe, candles)
    print(f"✅ Saved {len(candles)} candles to {path}")


def cmd_list(args) -> None:
    print("Available strategies:")
    for name in list_strategies():
        print(f"  - {name}")

    configs = ConfigManager(args.config_dir).list_configs()
    if configs:
        print("\nConfigs:")
        for name in configs:
            print(f"  - {name}")


def main():
    parser = argparse.ArgumentParser(
        description="Crypto Trading Bot - Paper Trading & Backtesting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python trade.py --fetch --symbol BTC/USD --timeframe 1h --duration 90d
  python trade.py --strategy RSI_EMA_Confluence --backtest --start 2024-01-01 --end 2024-03-31
  python trade.py --strategy macd --paper --timeframe 15m
  python trade.py --list
        """
    )

    parser.add_argument("--strategy", "-s",
                       help="Strategy to use (see --list)")
    parser.add_argument("--backtest", "-b", action="store_true",
                       help="Run backtest over historical data")
    parser.add_argument("--paper", "-p", action="store_true",
                       help="Run paper trading mode")
    parser.add_argument("--fetch", "-f", action="store_true",
                       help="Download Kraken candles into the data directory")
    parser.add_argument("--list", "-l", action="store_true",
                       help="List strategies and configs")
    parser.add_argument("--symbol",
                       help="Trading pair (default: first configured symbol)")
    parser.add_argument("--timeframe", "-t",
                       choices=sorted(KrakenDataSource.INTERVALS, key=KrakenDataSource.INTERVALS.get),
                       help="Candle interval (default: configured timeframe)")
    parser.add_argument("--start",
                       help="Range start, e.g. 2024-01-01")
    parser.add_argument("--end",
                       help="Range end, inclusive (default: now)")
    parser.add_argument("--duration", "-d", default="90d",
                       help="Range length when --start is omitted (default: 90d)")
    parser.add_argument("--source", choices=["file", "kraken"], default="file",
                       help="Backtest data source (default: file)")
    parser.add_argument("--data-dir",
                       help="Directory of JSON candle files")
    parser.add_argument("--capital", type=float,
                       help="Initial capital (default: from settings)")
    parser.add_argument("--config",
                       help="Settings file (JSON or YAML)")
    parser.add_argument("--config-dir", default="config",
                       help="Strategy config directory (default: config)")
    parser.add_argument("--output", "-o",
                       help="Output file for results")
    parser.add_argument("--verbose", "-v", action="store_true",
                       help="Verbose output")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        if args.list:
            cmd_list(args)
        elif args.fetch:
            cmd_fetch(args)
        elif args.backtest and args.strategy:
            cmd_backtest(args)
        elif args.paper and args.strategy:
            cmd_paper_trade(args)
        else:
            parser.print_help()
            sys.exit(1)
    except TradingError as e:
        print(f"❌ {e}")
        sys.exit(2)
    except FileNotFoundError as e:
        print(f"❌ {e}")
        print("Run with --fetch first to download candles.")
        sys.exit(2)


if __name__ == "__main__":
    main()
