# =============================================================================
# BASIC USAGE EXAMPLE - Persona Council Discussion Engine
# =============================================================================
"""
This example runs a short simulated discussion through the engine:
register agents, record turns across phases, rebalance weights, check
health and summarize.
"""

import asyncio
import logging

from persona_council import (
    DiscussionConfig,
    DiscussionEngine,
    Phase,
    PersonaType,
    build_config,
)


TOPIC = "How should a city adopt autonomous public transport?"

TURNS = [
    ("agent_intj", PersonaType.INTJ, Phase.BRAINSTORMING,
     "A phased strategy is essential. We should plan pilot routes first and analyze efficiency data before scaling."),
    ("agent_enfp", PersonaType.ENFP, Phase.BRAINSTORMING,
     "Imagine the possibilities! Autonomous transport could create new relationships between neighbourhoods and inspire people."),
    ("agent_istj", PersonaType.ISTJ, Phase.ANALYSIS,
     "We must be practical. Reliable maintenance plans and clear responsibility for failures come before any expansion."),
    ("agent_infj", PersonaType.INFJ, Phase.ANALYSIS,
     "The deeper meaning here is access. Our values should ensure harmony for elderly and disabled riders."),
    ("agent_intj", PersonaType.INTJ, Phase.SYNTHESIS,
     "Combining these points, the logical plan is a pilot with accessibility goals and strict reliability metrics."),
    ("agent_istj", PersonaType.ISTJ, Phase.CONCLUSION,
     "I agree with the pilot. In summary, a stable, practical rollout with documented responsibility."),
]


async def main():
    """Main example"""
    logging.basicConfig(level=logging.INFO)

    # =============================================================================
    # 1. CONFIGURE ENGINE
    # =============================================================================

    print("=" * 60)
    print("1. CONFIGURING ENGINE")
    print("=" * 60)

    result = build_config(preset="high_quality", overrides={'langfuse_enabled': False})
    for warning in result.warnings:
        print(f"⚠ {warning}")
    config: DiscussionConfig = result.unwrap()
    print(f"✓ Strategy: {config.optimization_strategy.value}")

    async with DiscussionEngine(config) as engine:

        # =============================================================================
        # 2. REGISTER AGENTS
        # =============================================================================

        print("\n" + "=" * 60)
        print("2. REGISTERING AGENTS")
        print("=" * 60)

        for node_id, persona_type, _, _ in TURNS:
            if engine.get_weight(node_id) is None:
                engine.register_agent(node_id, persona_type)
                print(f"✓ Registered {node_id} ({persona_type.value}) at weight {engine.get_weight(node_id):.2f}")

        # =============================================================================
        # 3. RECORD TURNS
        # =============================================================================

        print("\n" + "=" * 60)
        print("3. RECORDING TURNS")
        print("=" * 60)

        for node_id, persona_type, phase, statement in TURNS:
            outcome = await engine.record_turn(node_id, persona_type, statement, TOPIC, phase)
            flag = " (needs intervention)" if outcome.needs_intervention else ""
            print(
                f"✓ {node_id} [{phase.value}] overall={outcome.scores.overall_score:.2f} "
                f"weight={outcome.weight:.3f}{flag}"
            )

        # =============================================================================
        # 4. REBALANCE WEIGHTS
        # =============================================================================

        print("\n" + "=" * 60)
        print("4. REBALANCING FOR CONCLUSION")
        print("=" * 60)

        for adjustment in engine.adjust_all_weights(Phase.CONCLUSION):
            print(f"  {adjustment.node_id}: {adjustment.old_weight:.3f} -> {adjustment.new_weight:.3f}")

        distribution = engine.get_weight_distribution()
        print(f"✓ Total weight {distribution.total_weight:.3f}, average {distribution.average_weight:.3f}")

        # =============================================================================
        # 5. HEALTH AND METRICS
        # =============================================================================

        print("\n" + "=" * 60)
        print("5. HEALTH CHECK")
        print("=" * 60)

        health = engine.perform_health_check()
        print(f"✓ Status: {health.status.value}")
        for name, component in health.components.items():
            print(f"  {name}: {component.status.value} - {component.message}")

        metrics = engine.monitor.collect_metrics()
        print(f"✓ Average response time {metrics.system.response_time_ms:.1f}ms")

        # =============================================================================
        # 6. SUMMARY
        # =============================================================================

        print("\n" + "=" * 60)
        print("6. SUMMARY")
        print("=" * 60)

        summary = await engine.summarize(TOPIC, use_llm=False)
        print(f"Strategy: {summary.strategy.value}")
        print(summary.summary.overview)
        for insight in summary.summary.insights:
            print(f"  • {insight}")


if __name__ == "__main__":
    asyncio.run(main())
