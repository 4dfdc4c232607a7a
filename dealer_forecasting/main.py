"""
Command line interface for dealer demand forecasting.

Regenerates forecasts and suggested orders, manages suggestion status,
market indicators and per-dealer forecast configuration.
"""
import argparse
import json
import sys

from tabulate import tabulate

from dealer_forecasting import api
from dealer_forecasting.config import config
from dealer_forecasting.db import db
from dealer_forecasting.exceptions import ForecastingError
from dealer_forecasting.logging_setup import logger, get_logger
from dealer_forecasting.utils.date_utils import convert_to_date

log = get_logger('cli')


def init_application():
    """Initialize application components."""
    db.initialize()

    app_log = logger.app_logger
    app_log.info("Dealer Forecasting engine initialized")
    app_log.info(f"Using database engine: {config.get('DATABASE', 'engine')}")
    return True


def parse_value(raw):
    """Parse a CLI value as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def init_database(args):
    """Create all tables."""
    db.create_all_tables()
    print("Database tables created")
    return 0


def run_forecast(args):
    """Regenerate demand forecasts for a dealer."""
    results = api.generate_demand_forecasts(args.dealer_id, args.product_ids, args.as_of)

    table_data = [
        [
            result['product_id'],
            len(result['periods']),
            f"{result['summary']['total_forecasted_demand']:.1f}",
            f"{result['summary']['average_monthly_demand']:.1f}",
            result['summary']['peak_month'],
            result['summary']['low_month'],
            result['summary']['trend_direction'],
            f"{result['summary']['confidence_score']:.2f}",
        ]
        for result in results
    ]

    print(f"\nDemand Forecast for dealer {args.dealer_id}:")
    if table_data:
        print(tabulate(table_data, headers=[
            'Product', 'Periods', 'Total', 'Avg/Month', 'Peak', 'Low', 'Trend', 'Confidence'
        ]))
    else:
        print("No products forecast")
    return 0


def print_orders(orders):
    table_data = [
        [
            order['id'],
            order['product_sku'],
            order['suggested_order_date'],
            order['expected_delivery_date'],
            order['suggested_quantity'],
            order['current_stock'],
            order['reorder_point'],
            order['priority'],
            order['status'],
            f"{order['estimated_cost']:.2f}" if order['estimated_cost'] is not None else '',
        ]
        for order in orders
    ]
    print(tabulate(table_data, headers=[
        'ID', 'SKU', 'Order Date', 'Delivery', 'Qty', 'Stock', 'Reorder Pt', 'Priority', 'Status', 'Cost'
    ]))


def run_plan(args):
    """Regenerate the suggested order plan for a dealer."""
    plan = api.generate_suggested_order_plan(args.dealer_id, args.as_of)
    summary = plan['summary']

    print(f"\nSuggested Order Plan for {plan['dealer_name'] or args.dealer_id}:")
    if plan['orders']:
        print_orders(plan['orders'])
    else:
        print("No orders needed")

    print(f"\nTotal Orders: {summary['total_orders']}")
    print(f"Total Units: {summary['total_units']:.0f}")
    print(f"Estimated Cost: {summary['total_estimated_cost']:.2f}")
    print(f"Estimated Value: {summary['total_estimated_value']:.2f}")
    print(f"Critical Orders: {summary['critical_orders']}")
    return 0


def list_orders(args):
    """List suggested orders for a dealer."""
    orders = api.get_suggested_orders(args.dealer_id, args.status)

    if args.json:
        print(json.dumps(orders, indent=2))
    elif orders:
        print_orders(orders)
    else:
        print("No suggested orders found")
    return 0


def set_status(args):
    """Change the status of a suggested order."""
    order = api.update_suggested_order_status(args.order_id, args.status, args.actual_order_id)
    print(f"Suggested order {order['id']} is now {order['status']}")
    return 0


def show_market(args):
    """Show the market analysis for a dealer."""
    analysis = api.get_market_analysis(args.dealer_id, args.as_of)

    print(f"\nMarket Analysis for region {analysis['region']}:")
    if analysis['indicators']:
        print(tabulate(
            [[i['name'], i['type'], i['current_value'], i['trend'], i['impact']] for i in analysis['indicators']],
            headers=['Indicator', 'Type', 'Value', 'Trend', 'Impact']
        ))
    print(f"\nOverall Outlook: {analysis['overall_outlook']}")
    print(f"Adjustment Factor: {analysis['adjustment_factor']}")
    return 0


def seed_market(args):
    """Load sample market indicators."""
    count = api.seed_market_indicators(args.as_of)
    print(f"Seeded {count} market indicators")
    return 0


def manage_config(args):
    """Show or change a dealer's forecast configuration."""
    if args.action == 'set':
        if not args.values:
            log.error("No settings given; use key=value pairs")
            return 1
        updates = {}
        for item in args.values:
            key, sep, raw = item.partition('=')
            if not sep:
                log.error(f"Invalid setting '{item}', expected key=value")
                return 1
            updates[key] = parse_value(raw)
        settings = api.update_forecast_config(args.dealer_id, updates)
    else:
        settings = api.get_or_create_forecast_config(args.dealer_id)

    print(tabulate(sorted(settings.items()), headers=['Setting', 'Value']))
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description='Dealer Demand Forecasting CLI')
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    init_parser = subparsers.add_parser('init-db', help='Create database tables')
    init_parser.set_defaults(func=init_database)

    forecast_parser = subparsers.add_parser('forecast', help='Regenerate demand forecasts')
    forecast_parser.add_argument('dealer_id', type=int, help='Dealer ID')
    forecast_parser.add_argument('--product-ids', type=int, nargs='+', help='Limit to these products')
    forecast_parser.add_argument('--as-of', type=convert_to_date, help='Run date (YYYY-MM-DD)')
    forecast_parser.set_defaults(func=run_forecast)

    plan_parser = subparsers.add_parser('plan', help='Regenerate the suggested order plan')
    plan_parser.add_argument('dealer_id', type=int, help='Dealer ID')
    plan_parser.add_argument('--as-of', type=convert_to_date, help='Run date (YYYY-MM-DD)')
    plan_parser.set_defaults(func=run_plan)

    orders_parser = subparsers.add_parser('orders', help='List suggested orders')
    orders_parser.add_argument('dealer_id', type=int, help='Dealer ID')
    orders_parser.add_argument('--status', help='Filter by status')
    orders_parser.add_argument('--json', action='store_true', help='Output in JSON format')
    orders_parser.set_defaults(func=list_orders)

    status_parser = subparsers.add_parser('set-status', help='Change a suggested order status')
    status_parser.add_argument('order_id', type=int, help='Suggested order ID')
    status_parser.add_argument('status', help='pending, accepted, ordered or skipped')
    status_parser.add_argument('--actual-order-id', type=int, help='Placed order ID')
    status_parser.set_defaults(func=set_status)

    market_parser = subparsers.add_parser('market', help='Show market analysis')
    market_parser.add_argument('dealer_id', type=int, help='Dealer ID')
    market_parser.add_argument('--as-of', type=convert_to_date, help='Reference date (YYYY-MM-DD)')
    market_parser.set_defaults(func=show_market)

    seed_parser = subparsers.add_parser('seed-market', help='Load sample market indicators')
    seed_parser.add_argument('--as-of', type=convert_to_date, help='Reference date (YYYY-MM-DD)')
    seed_parser.set_defaults(func=seed_market)

    config_parser = subparsers.add_parser('config', help='Show or change forecast configuration')
    config_parser.add_argument('action', choices=['show', 'set'], help='Action')
    config_parser.add_argument('dealer_id', type=int, help='Dealer ID')
    config_parser.add_argument('values', nargs='*', help='key=value pairs for set')
    config_parser.set_defaults(func=manage_config)

    return parser


def main(argv=None):
    """Main entry point for the command line interface."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, 'func', None):
        parser.print_help()
        return 1

    init_application()

    try:
        return args.func(args)
    except ForecastingError as e:
        log.error(str(e))
        if e.details:
            log.error(f"Details: {e.details}")
        return 1
    except Exception as e:
        logger.log_exception('cli', e, f"Command {args.command} failed")
        return 1


if __name__ == '__main__':
    sys.exit(main())
