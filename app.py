#!/usr/bin/env python3

import os

import aws_cdk as cdk

from product_fanout.product_fanout_stack import ProductFanoutStack
from product_fanout.settings import FanoutSettings
from product_fanout.topology_checks import validate_topology

app = cdk.App()
env = cdk.Environment(account=os.environ["ACCOUNT_ID"], region=os.environ["REGION"])

stack = ProductFanoutStack(
    app,
    "ProductFanoutStack",
    settings=FanoutSettings.from_context(app.node),
    env=env,
)

assembly = app.synth()

# fail the synth if anything in the fan-out isn't wired up
validate_topology(assembly.get_stack_by_name(stack.stack_name).template)
