"""
Streamlit Web Application for Token Inflation Modeling

This application provides an interactive interface for exploring inflation
schedules using the core emission engine. Users can adjust the supply and
schedule parameters and compare the resulting emissions across bear, base and
bull price scenarios using Altair charts.
"""

import streamlit as st
import altair as alt
import numpy as np
import pandas as pd

# Import core simulation components
from sim import (
    DEFAULT_CONFIG,
    DEFAULT_SCHEDULES,
    BatchGenerations,
    TokenomicsConfig,
    TokenomicsError,
    combine_results,
    default_price_scenarios,
    schedule_from_dict,
)

# Configure Streamlit page
st.set_page_config(
    page_title="Tokenomics Dashboard",
    page_icon=None,
    layout="wide",
    initial_sidebar_state="expanded"
)

# Slider settings per schedule parameter: (label, min, max, step, help)
SCHEDULE_CONTROLS = {
    'linear': {
        'max_rate': ("Max Annual Rate", 0.01, 0.5, 0.01, "Annual inflation at the start of the period."),
        'min_rate': ("Min Annual Rate", 0.001, 0.1, 0.001, "Annual inflation at the end of the period."),
    },
    'halving': {
        'initial_rate': ("Initial Annual Rate", 0.01, 0.5, 0.01, "Annual inflation before the first halving."),
        'halving_period': ("Halving Period (years)", 0.5, 4.0, 0.5, "Years between two halvings."),
    },
    'logarithmic': {
        'log_scale': ("Initial Annual Rate", 0.01, 0.5, 0.01, "Annual inflation at the start of the period."),
        'log_base': ("Decay Constant", 0.1, 1.0, 0.1, "Larger values decay more slowly."),
    },
    'exponential': {
        'exp_scale': ("Initial Annual Rate", 0.01, 0.5, 0.01, "Annual inflation at the start of the period."),
        'decay_rate': ("Decay Exponent", 0.5, 5.0, 0.1, "Curvature of the decay towards zero at the end of the period."),
    },
}


def format_number(value: float) -> str:
    """Compact number formatting used in cards and insights"""
    if value >= 1e9:
        return f"{value / 1e9:.1f}B"
    elif value >= 1e6:
        return f"{value / 1e6:.1f}M"
    elif value >= 1e3:
        return f"{value / 1e3:.1f}K"
    return f"{value:.0f}"


def create_sidebar_config():
    """
    Create sidebar configuration interface with organized parameter groups

    Returns:
        Tuple of (TokenomicsConfig, schedule kind, schedule parameters, scenario seed, display options)
    """
    st.sidebar.title("Model Configuration")
    st.sidebar.markdown("Adjust parameters to explore different inflation schedules")

    # TOKEN CONFIGURATION
    with st.sidebar.expander("Token Configuration", expanded=True):
        total_supply = st.number_input(
            "Total Supply",
            min_value=1, value=int(DEFAULT_CONFIG.total_supply), step=1_000_000,
            help="Maximum number of tokens that will ever exist."
        )

        tge_percentage = st.slider(
            "TGE Unlock (%)",
            min_value=1.0, max_value=80.0, value=DEFAULT_CONFIG.tge_percentage, step=0.1,
            help="Percentage of total supply circulating at the Token Generation Event."
        )

        initial_price = st.number_input(
            "Initial Token Price ($)",
            min_value=0.01, value=DEFAULT_CONFIG.initial_price, step=0.01,
            help="Token price in USD at day 0. Scenario multipliers are applied to this price."
        )

        inflation_period_years = st.slider(
            "Inflation Period (years)",
            min_value=1.0, max_value=10.0, value=float(DEFAULT_CONFIG.inflation_period_years), step=0.5,
            help="Length of the inflation schedule. Linear and exponential rates hold their final value afterwards, halving and logarithmic rates keep decaying."
        )

        st.caption(f"Initial circulating supply: {format_number(total_supply * tge_percentage / 100)} tokens")

    # INFLATION SCHEDULE
    with st.sidebar.expander("Inflation Schedule", expanded=True):
        schedule_kind = st.selectbox(
            "Schedule Type",
            list(SCHEDULE_CONTROLS),
            format_func=str.capitalize,
            help="Shape of the annual inflation-rate decay over the inflation period."
        )

        preset = DEFAULT_SCHEDULES[schedule_kind]
        schedule_parameters = {}
        for name, (label, min_value, max_value, step, help_text) in SCHEDULE_CONTROLS[schedule_kind].items():
            schedule_parameters[name] = st.slider(
                label,
                min_value=min_value, max_value=max_value, value=float(getattr(preset, name)), step=step,
                key=f"{schedule_kind}_{name}",
                help=help_text
            )

    # PRICE SCENARIOS
    with st.sidebar.expander("Price Scenarios", expanded=False):
        st.markdown("**Bear (0.5x), Base (2x) and Bull (5x) over 72 months with ±10% monthly noise**")
        scenario_seed = st.number_input(
            "Random Seed",
            min_value=0, max_value=2**32 - 1, value=42, step=1,
            help="Seed of the price noise. The same seed always gives the same scenarios."
        )

    # DISPLAY OPTIONS
    with st.sidebar.expander("Display Options", expanded=False):
        show_tokens = st.checkbox("Show Tokens", value=False)
        show_usd = st.checkbox("Show USD Value", value=True)
        show_cumulative = st.checkbox("Cumulative", value=False)

    config = TokenomicsConfig(
        total_supply=float(total_supply),
        tge_percentage=tge_percentage,
        inflation_period_years=inflation_period_years,
        initial_price=initial_price,
    )
    display = {'tokens': show_tokens, 'usd': show_usd, 'cumulative': show_cumulative}
    return config, schedule_kind, schedule_parameters, int(scenario_seed), display


def create_summary_cards(results):
    """One column of key metrics per scenario"""
    columns = st.columns(len(results))
    for col, result in zip(columns, results):
        metrics = result.get_summary_metrics()
        with col:
            st.markdown(f"**{result.scenario}**")
            st.metric("Total Tokens Emitted", format_number(metrics['total_tokens_emitted']))
            st.metric("Total USD Value", f"${format_number(metrics['total_usd_value'])}")
            st.metric("Final Inflation Rate", f"{metrics['final_inflation_rate']:.2f}%")
            st.metric("Duration", f"{metrics['duration_years']} years")
            st.metric(
                "Price Performance",
                f"${metrics['initial_price']:.2f} to ${metrics['final_price']:.2f}",
                f"{metrics['price_change_pct']:.0f}%"
            )


def scenario_color_scale(results) -> alt.Scale:
    return alt.Scale(
        domain=[result.scenario for result in results],
        range=[result.color for result in results]
    )


def create_charts(results, display, unit_cost_per_hour):
    """
    Create and display all visualization charts

    Args:
        results: List of ModelResults, one per scenario
        display: Which series to show ('tokens', 'usd', 'cumulative')
        unit_cost_per_hour: Hourly rental cost of one hardware unit in USD
    """
    # Configure Altair
    alt.data_transformers.enable('json')

    df = combine_results(results)
    color_scale = scenario_color_scale(results)

    # Token emission plot
    mode = "Cumulative" if display['cumulative'] else "Daily"
    st.subheader(f"Token Emission Analysis ({mode})")
    series = []
    if display['tokens']:
        column = 'Cumulative_Tokens' if display['cumulative'] else 'Tokens_Emitted'
        series.append(('Tokens', column))
    if display['usd']:
        column = 'Cumulative_USD_Value' if display['cumulative'] else 'USD_Value_Emitted'
        series.append(('USD', column))

    if series:
        emission_df = pd.concat([
            pd.DataFrame({
                'Day': df['Day'],
                'Scenario': df['Scenario'] + f" ({unit})",
                'Base Scenario': df['Scenario'],
                'Unit': unit,
                'Value': df[column],
            })
            for unit, column in series
        ], ignore_index=True)

        emission_chart = alt.Chart(emission_df).mark_line(
            strokeWidth=2
        ).encode(
            x=alt.X('Day:Q', title='Time (Days)'),
            y=alt.Y('Value:Q', title=' & '.join(unit for unit, _ in series)),
            color=alt.Color('Base Scenario:N', scale=color_scale, title='Scenario'),
            strokeDash=alt.StrokeDash('Unit:N'),
            detail='Scenario:N',
            tooltip=[
                alt.Tooltip('Day:Q', title='Day'),
                alt.Tooltip('Scenario:N', title='Series'),
                alt.Tooltip('Value:Q', title='Value', format=',.0f')
            ]
        ).properties(
            height=400
        ).interactive()
        st.altair_chart(emission_chart, use_container_width=True)
    else:
        st.info("Select at least one display option (Tokens or USD) to view the chart")

    # Inflation rate plot
    st.subheader("Inflation Rate Schedule")
    st.caption("""
    Annualized inflation rate applied to the circulating supply on each day. The rate depends
    only on the schedule, so all scenarios overlap unless one of them ran out of supply early.
    """)
    inflation_chart = alt.Chart(df).mark_line(
        strokeWidth=3
    ).encode(
        x=alt.X('Day:Q', title='Time (Days)'),
        y=alt.Y('Inflation_Rate:Q', title='Annual Inflation Rate (%)', scale=alt.Scale(domain=[0, None])),
        color=alt.Color('Scenario:N', scale=color_scale),
        tooltip=[
            alt.Tooltip('Day:Q', title='Day'),
            alt.Tooltip('Scenario:N', title='Scenario'),
            alt.Tooltip('Inflation_Rate:Q', title='Rate (%)', format='.2f')
        ]
    ).properties(
        height=350
    ).interactive()
    st.altair_chart(inflation_chart, use_container_width=True)

    # Hardware capacity plot
    st.subheader(f"GPU Network Capacity (SOTA GPUs @ ${unit_cost_per_hour:.2f}/hr)")
    st.caption("""
    Number of GPUs that the USD value emitted each day could rent for 24 hours.
    """)
    capacity_df = pd.DataFrame({
        'Day': df['Day'],
        'Scenario': df['Scenario'],
        'GPUs': np.concatenate([result.hardware_capacity(unit_cost_per_hour) for result in results]),
    })
    capacity_chart = alt.Chart(capacity_df).mark_line(
        strokeWidth=2
    ).encode(
        x=alt.X('Day:Q', title='Time (Days)'),
        y=alt.Y('GPUs:Q', title='Number of SOTA GPUs', scale=alt.Scale(domain=[0, None])),
        color=alt.Color('Scenario:N', scale=color_scale),
        tooltip=[
            alt.Tooltip('Day:Q', title='Day'),
            alt.Tooltip('Scenario:N', title='Scenario'),
            alt.Tooltip('GPUs:Q', title='GPUs', format=',.0f')
        ]
    ).properties(
        height=350
    ).interactive()
    st.altair_chart(capacity_chart, use_container_width=True)


def create_insights(config, schedule, results, unit_cost_per_hour):
    """Emission summary and scenario comparison"""
    st.subheader("Key Insights")
    col1, col2 = st.columns(2)

    with col1:
        st.markdown("**Emission Summary**")
        st.write(f"- Initial circulating supply: {config.tge_supply:,.0f} tokens ({config.tge_percentage:g}%)")
        st.write(f"- Available for emission: {config.emission_budget:,.0f} tokens ({100 - config.tge_percentage:.1f}%)")
        st.write(f"- Emission period: {config.inflation_period_years:g} years")
        st.write(f"- Schedule: {schedule.get_description()}")

    with col2:
        st.markdown("**Scenario Comparison**")
        for result in results:
            capacity = result.hardware_capacity(unit_cost_per_hour)
            peak = int(np.floor(capacity.max())) if len(capacity) else 0
            st.write(f"- {result.scenario}: ${result.total_usd_value / 1e6:.1f}M total value")
            st.write(f"  - Peak GPU capacity: {peak:,} GPUs")


def main():
    """Main Streamlit application"""

    config, schedule_kind, schedule_parameters, scenario_seed, display = create_sidebar_config()

    # Header
    st.title("Tokenomics Dashboard")
    st.markdown(f"""
    **Interactive inflation modeling for blockchain projects**

    Total Supply: {config.total_supply:,.0f} tokens | TGE: {config.tge_percentage:g}%
    """)

    if 'generations' not in st.session_state:
        st.session_state.generations = BatchGenerations()

    try:
        schedule = schedule_from_dict(schedule_kind, schedule_parameters)
        scenarios = default_price_scenarios(np.random.default_rng(scenario_seed))
        results = st.session_state.generations.run(config, schedule, scenarios)
    except TokenomicsError as e:
        st.error(f"Invalid model configuration: {e}")
        return

    if results is None:
        # A newer rerun owns the page
        return
    if not results:
        st.warning("No price scenario could be simulated")
        return

    create_summary_cards(results)

    unit_cost_per_hour = st.slider(
        "GPU Cost per Hour ($)",
        min_value=0.5, max_value=10.0, value=2.0, step=0.1,
        help="Hourly rental cost of one state-of-the-art GPU."
    )

    create_charts(results, display, unit_cost_per_hour)
    create_insights(config, schedule, results, unit_cost_per_hour)


if __name__ == "__main__":
    main()
